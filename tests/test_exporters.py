"""Integration tests for exporters.

Tests the export pipeline including:
- Binding and lifecycle ordering
- CSV file naming, header, records, and footer
- Round-trip of exported values
- Fan-out through GlobalExporter
"""

import math
import os
import re
from pathlib import Path

import pytest

from simexport.errors import (
    AlreadyBoundError,
    AlreadyClosedError,
    ConfigurationError,
    EmptyFileNameError,
    ExportError,
    NotSetUpError,
    PropertyResolutionError,
    SchemaMismatchError,
    SinkOpenError,
)
from simexport.exporters import (
    AbstractExporter,
    CSVExporter,
    GlobalExporter,
    read_csv_samples,
    resolve_output_path,
    variables_descriptor,
)
from simexport.extractors import MeanSquaredError, StepExtractor, TimeExtractor
from simexport.constants import SEPARATOR


class RecordingExporter(AbstractExporter):
    """In-memory exporter recording every sink call."""

    def __init__(self, interval=1.0, fail_on_open=False, fail_on_footer=False):
        super().__init__(interval)
        self.records = []
        self.events = []
        self.fail_on_open = fail_on_open
        self.fail_on_footer = fail_on_footer

    def _open(self, environment):
        if self.fail_on_open:
            raise SinkOpenError("cannot open")
        self.events.append("open")

    def _write_record(self, record):
        self.records.append(record)

    def _write_footer(self, environment, time, step):
        if self.fail_on_footer:
            raise OSError("disk full")
        self.events.append("footer")

    def _release(self):
        self.events.append("release")


class ValueExtractor:
    """Extractor exporting values looked up by step."""

    column_names = ("value",)

    def __init__(self, values_by_step):
        self.values_by_step = values_by_step

    def extract(self, environment, reaction, time, step):
        return {"value": self.values_by_step.get(step, math.nan)}


class FailingExtractor:
    """Extractor raising once the simulation reaches a given time."""

    column_names = ("time",)

    def __init__(self, from_time):
        self.from_time = from_time

    def extract(self, environment, reaction, time, step):
        if time >= self.from_time:
            raise RuntimeError(f"extraction failed at time {time}")
        return {"time": time}


def run_scenario(exporter, environment, instants, final):
    """Drive an exporter through setup, updates, and close."""
    exporter.setup(environment)
    for time, step in instants:
        exporter.update(environment, object(), time, step)
    exporter.close(environment, *final)


class TestVariablesDescriptor:
    """Tests for variables_descriptor."""

    def test_sorted_and_stable(self):
        """Key order in the mapping does not affect the descriptor."""
        first = variables_descriptor({"seed": 3, "rate": 0.5})
        second = variables_descriptor({"rate": 0.5, "seed": 3})
        assert first == second == "rate-0.5_seed-3"

    def test_empty(self):
        """No variables give an empty descriptor."""
        assert variables_descriptor({}) == ""


class TestExporterLifecycle:
    """Tests for the lifecycle enforced by AbstractExporter."""

    def test_setup_forces_initial_sample(self, empty_environment):
        """Setup exports one sample at time 0, step 0."""
        exporter = RecordingExporter(interval=10.0)
        exporter.bind_data_extractors([TimeExtractor(), StepExtractor()])
        exporter.setup(empty_environment)
        assert exporter.records == [[0.0, 0.0]]
        assert exporter.is_setup

    def test_gate_scenario(self, empty_environment):
        """Only admitted instants produce records; boundaries always do."""
        exporter = RecordingExporter(interval=1.0)
        exporter.bind_data_extractors([TimeExtractor()])
        run_scenario(
            exporter,
            empty_environment,
            [(0.3, 1), (0.9, 2), (1.2, 3), (2.5, 4)],
            final=(3.0, 5),
        )
        assert [record[0] for record in exporter.records] == [0.0, 1.2, 2.5, 3.0]
        assert exporter.samples_written == 4

    def test_rebinding_replaces(self, empty_environment):
        """A second binding before setup fully replaces the first."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([TimeExtractor(), StepExtractor()])
        exporter.bind_data_extractors([StepExtractor()])
        assert exporter.column_names == ("step",)
        exporter.setup(empty_environment)
        assert exporter.records == [[0.0]]

    def test_bind_after_setup_fails(self, empty_environment):
        """Binding after setup is refused."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        with pytest.raises(AlreadyBoundError):
            exporter.bind_data_extractors([StepExtractor()])
        with pytest.raises(AlreadyBoundError):
            exporter.bind_variables({"a": 1})

    def test_bind_after_close_fails(self, empty_environment):
        """Binding after close is refused."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        exporter.close(empty_environment, 1.0, 1)
        with pytest.raises(AlreadyClosedError):
            exporter.bind_variables({"a": 1})

    def test_duplicate_columns_rejected(self):
        """Binding two extractors with the same column fails."""
        exporter = RecordingExporter()
        with pytest.raises(SchemaMismatchError):
            exporter.bind_data_extractors([TimeExtractor(), TimeExtractor()])

    def test_variables_are_read_only(self):
        """Bound variables cannot be modified afterwards."""
        exporter = RecordingExporter()
        source = {"seed": 1}
        exporter.bind_variables(source)
        source["seed"] = 2
        assert exporter.variables["seed"] == 1
        with pytest.raises(TypeError):
            exporter.variables["seed"] = 3

    def test_setup_twice_fails(self, empty_environment):
        """Setup can only run once."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        with pytest.raises(AlreadyBoundError):
            exporter.setup(empty_environment)

    def test_update_before_setup_fails(self, empty_environment):
        """Update requires setup."""
        exporter = RecordingExporter()
        with pytest.raises(NotSetUpError):
            exporter.update(empty_environment, None, 1.0, 1)

    def test_close_twice_fails(self, empty_environment):
        """Close can only run once."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        exporter.close(empty_environment, 1.0, 1)
        with pytest.raises(AlreadyClosedError):
            exporter.close(empty_environment, 1.0, 1)

    def test_update_after_close_fails(self, empty_environment):
        """Update after close is refused."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        exporter.close(empty_environment, 1.0, 1)
        with pytest.raises(AlreadyClosedError):
            exporter.update(empty_environment, None, 2.0, 2)

    def test_time_must_not_decrease(self, empty_environment):
        """Offered instants must be non-decreasing."""
        exporter = RecordingExporter(interval=0.0)
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        exporter.update(empty_environment, None, 2.0, 5)
        with pytest.raises(ValueError):
            exporter.update(empty_environment, None, 1.0, 6)
        with pytest.raises(ValueError):
            exporter.update(empty_environment, None, 3.0, 4)

    def test_failed_open_is_fatal(self, empty_environment):
        """If the sink cannot be opened, setup fails and nothing is exported."""
        exporter = RecordingExporter(fail_on_open=True)
        exporter.bind_data_extractors([TimeExtractor()])
        with pytest.raises(SinkOpenError):
            exporter.setup(empty_environment)
        assert not exporter.is_setup
        assert exporter.records == []

    def test_release_on_footer_failure(self, empty_environment):
        """The sink is released even if writing the trailer fails."""
        exporter = RecordingExporter(fail_on_footer=True)
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        with pytest.raises(OSError):
            exporter.close(empty_environment, 1.0, 1)
        assert exporter.events[-1] == "release"
        assert exporter.is_closed

    def test_schema_error_surfaces_on_first_sample(self, empty_environment):
        """A misbehaving extractor fails at the first extract call."""

        class Liar:
            column_names = ("x",)

            def extract(self, environment, reaction, time, step):
                return {"y": 1.0}

        exporter = RecordingExporter()
        exporter.bind_data_extractors([Liar()])
        with pytest.raises(SchemaMismatchError):
            exporter.setup(empty_environment)

    def test_setup_without_extractors_fails(self, empty_environment):
        """Setup with nothing bound is a configuration error and opens nothing."""
        exporter = RecordingExporter()
        with pytest.raises(ConfigurationError):
            exporter.setup(empty_environment)
        assert exporter.events == []
        assert not exporter.is_setup

    def test_release_on_initial_sample_failure(self, empty_environment):
        """If the forced first sample fails, the sink is released and the exporter closed."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([FailingExtractor(from_time=0.0)])
        with pytest.raises(RuntimeError):
            exporter.setup(empty_environment)
        assert exporter.events == ["open", "release"]
        assert exporter.is_closed
        with pytest.raises(AlreadyClosedError):
            exporter.update(empty_environment, None, 1.0, 1)

    def test_release_on_final_sample_failure(self, empty_environment):
        """The sink is released even if the forced last sample fails."""
        exporter = RecordingExporter()
        exporter.bind_data_extractors([FailingExtractor(from_time=5.0)])
        exporter.setup(empty_environment)
        with pytest.raises(RuntimeError):
            exporter.close(empty_environment, 5.0, 3)
        assert exporter.events == ["open", "release"]
        assert exporter.is_closed


class TestResolveOutputPath:
    """Tests for output path composition."""

    def test_all_components(self, temp_dir):
        """Root, descriptor, and timestamp are combined."""
        path = resolve_output_path(temp_dir, "run", "seed-1", "1700", "csv")
        assert path == Path(temp_dir) / "run_seed-11700.csv"

    def test_root_only(self, temp_dir):
        """Empty components are omitted with their separator."""
        assert resolve_output_path(temp_dir, "run", "", "", "txt").name == "run.txt"

    def test_descriptor_only(self, temp_dir):
        """A descriptor alone names the file."""
        assert resolve_output_path(temp_dir, "", "a-1_b-2", "", "csv").name == "a-1_b-2.csv"

    def test_trailing_separator_normalized(self, temp_dir):
        """A trailing separator on the directory does not change the result."""
        with_sep = resolve_output_path(temp_dir + os.sep, "run", "", "", "csv")
        assert with_sep == resolve_output_path(temp_dir, "run", "", "", "csv")

    def test_empty_name_fails(self, temp_dir):
        """Something must name the file."""
        with pytest.raises(EmptyFileNameError):
            resolve_output_path(temp_dir, "", "", "", "csv")

    @pytest.mark.parametrize("descriptor", ["path-../x", "dir-a/b", "dir-a\\b"])
    def test_descriptor_cannot_escape_directory(self, temp_dir, descriptor):
        """Separators and parent references in bound values are rejected."""
        with pytest.raises(ConfigurationError):
            resolve_output_path(temp_dir, "run", descriptor, "", "csv")

    def test_decimal_values_allowed(self, temp_dir):
        """Single dots in numeric values are not parent references."""
        path = resolve_output_path(temp_dir, "run", "rate-0.5_scale-1e-05", "", "csv")
        assert path.parent == Path(temp_dir)


class TestCSVExporter:
    """Tests for CSVExporter."""

    def test_file_format(self, temp_dir, empty_environment):
        """The file has a header banner, legend, records, and footer banner."""
        exporter = CSVExporter("export", interval=1.0, export_path=temp_dir)
        exporter.bind_data_extractors([TimeExtractor(), StepExtractor()])
        exporter.bind_variables({"seed": 7, "rate": 0.25})
        run_scenario(exporter, empty_environment, [(0.5, 1), (1.5, 2)], final=(2.0, 3))

        path = Path(temp_dir) / "export_rate-0.25_seed-7.csv"
        assert exporter.output_path == path.resolve()
        lines = path.read_text(encoding="utf-8").splitlines()

        assert lines[0] == SEPARATOR
        assert re.match(r"^# simexport log file - simulation started at: \d{4}-\d{2}-\d{2}T\d{2}:\d{2}\+0000 #$", lines[1])
        assert lines[2] == SEPARATOR
        assert "# rate-0.25_seed-7" in lines
        assert "# time step" in lines
        assert lines[-3] == SEPARATOR
        assert lines[-2].startswith("# End of data export. Simulation finished at: ")
        assert lines[-1] == SEPARATOR

        data = [line for line in lines if not line.startswith("#")]
        assert data == ["0.0 0.0", "1.5 2.0", "2.0 3.0"]

    def test_round_trip(self, temp_dir, empty_environment):
        """Re-parsed data lines equal the exported values exactly."""
        values = {0: 0.1, 1: 1.0 / 3.0, 2: -2.5e-17, 3: 1e300, 4: math.pi}
        exporter = CSVExporter("roundtrip", interval=0.0, export_path=temp_dir)
        exporter.bind_data_extractors([StepExtractor(), ValueExtractor(values)])
        run_scenario(exporter, empty_environment, [(0.1, 1), (0.2, 2), (0.3, 3)], final=(0.4, 4))

        samples = read_csv_samples(exporter.output_path)
        assert samples == [[float(step), values[step]] for step in range(5)]

    def test_nan_written_and_read(self, temp_dir, incarnation, registry, empty_environment):
        """NaN statistics are exported as nan and read back as NaN."""
        mse = MeanSquaredError(incarnation, "reference", "", "mean", "actual", "", registry)
        exporter = CSVExporter("nan", export_path=temp_dir)
        exporter.bind_data_extractors([mse])
        run_scenario(exporter, empty_environment, [], final=(1.0, 1))
        samples = read_csv_samples(exporter.output_path)
        assert len(samples) == 2
        assert all(math.isnan(sample[0]) for sample in samples)

    def test_mse_column(self, temp_dir, incarnation, registry, two_node_environment):
        """The MSE column legend and value are written."""
        mse = MeanSquaredError(incarnation, "reference", "", "mean", "actual", "", registry)
        exporter = CSVExporter("mse", export_path=temp_dir)
        exporter.bind_data_extractors([TimeExtractor(), mse])
        run_scenario(exporter, two_node_environment, [], final=(1.0, 1))
        text = exporter.output_path.read_text(encoding="utf-8")
        assert "# time MSE(mean(reference),actual)" in text
        assert read_csv_samples(exporter.output_path) == [[0.0, 8.0], [1.0, 8.0]]

    def test_empty_file_name_fails_at_setup(self, temp_dir, empty_environment):
        """No root, no variables, and no timestamp is a configuration error."""
        exporter = CSVExporter(export_path=temp_dir)
        exporter.bind_data_extractors([TimeExtractor()])
        with pytest.raises(EmptyFileNameError):
            exporter.setup(empty_environment)

    def test_append_time_names_file(self, temp_dir, empty_environment):
        """With append_time a timestamp alone is enough to name the file."""
        exporter = CSVExporter(export_path=temp_dir, append_time=True)
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        exporter.close(empty_environment, 1.0, 1)
        assert re.fullmatch(r"\d+\.csv", exporter.output_path.name)

    def test_directory_created(self, temp_dir, empty_environment):
        """Missing export directories are created."""
        nested = os.path.join(temp_dir, "a", "b")
        exporter = CSVExporter("nested", export_path=nested, file_extension=".txt")
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.setup(empty_environment)
        exporter.close(empty_environment, 0.0, 0)
        assert (Path(nested) / "nested.txt").exists()

    def test_unopenable_path(self, temp_dir, empty_environment):
        """A directory that cannot be created fails setup with SinkOpenError."""
        blocker = Path(temp_dir) / "file"
        blocker.write_text("not a directory")
        exporter = CSVExporter("x", export_path=str(blocker / "sub"))
        exporter.bind_data_extractors([TimeExtractor()])
        with pytest.raises(SinkOpenError):
            exporter.setup(empty_environment)

    def test_exclusive_ownership(self, temp_dir, empty_environment):
        """Two live exporters cannot write the same file."""
        first = CSVExporter("shared", export_path=temp_dir)
        second = CSVExporter("shared", export_path=temp_dir)
        first.bind_data_extractors([TimeExtractor()])
        second.bind_data_extractors([TimeExtractor()])
        first.setup(empty_environment)
        with pytest.raises(SinkOpenError):
            second.setup(empty_environment)
        first.close(empty_environment, 1.0, 1)

        # Released on close, so a new exporter may take the path
        third = CSVExporter("shared", export_path=temp_dir)
        third.bind_data_extractors([TimeExtractor()])
        third.setup(empty_environment)
        third.close(empty_environment, 1.0, 1)

    def test_temporary_directory_default(self, empty_environment):
        """Without an export path a temporary directory is used."""
        exporter = CSVExporter("tmp")
        exporter.bind_data_extractors([TimeExtractor()])
        assert os.path.isdir(exporter.export_path)
        exporter.setup(empty_environment)
        exporter.close(empty_environment, 0.0, 0)
        assert exporter.output_path.parent == Path(exporter.export_path).resolve()

    def test_setup_without_extractors_creates_no_file(self, temp_dir, empty_environment):
        """An exporter with nothing bound fails before touching the directory."""
        exporter = CSVExporter("empty", export_path=temp_dir)
        with pytest.raises(ConfigurationError):
            exporter.setup(empty_environment)
        assert os.listdir(temp_dir) == []

    def test_failed_initial_sample_frees_path(self, temp_dir, incarnation, registry, two_node_environment):
        """A failure on the first sample releases the file for the next exporter."""
        mse = MeanSquaredError(incarnation, "reference", "", "mean", "ghost", "", registry)
        exporter = CSVExporter("ghost", export_path=temp_dir)
        exporter.bind_data_extractors([mse])
        with pytest.raises(PropertyResolutionError):
            exporter.setup(two_node_environment)
        assert exporter.is_closed

        retry = CSVExporter("ghost", export_path=temp_dir)
        retry.bind_data_extractors([TimeExtractor()])
        retry.setup(two_node_environment)
        retry.close(two_node_environment, 1.0, 1)
        assert read_csv_samples(retry.output_path) == [[0.0], [1.0]]

    def test_variables_stay_inside_export_path(self, temp_dir, empty_environment):
        """A bound value holding a parent reference cannot place the file elsewhere."""
        export_path = os.path.join(temp_dir, "out")
        exporter = CSVExporter("run", export_path=export_path)
        exporter.bind_data_extractors([TimeExtractor()])
        exporter.bind_variables({"path": "../x"})
        with pytest.raises(ConfigurationError):
            exporter.setup(empty_environment)
        assert os.listdir(temp_dir) == []

    def test_from_config(self, temp_dir):
        """Exporters can be built from an ExportConfig."""
        from simexport.config import ExportConfig

        config = ExportConfig(file_name_root="cfg", interval=0.5, export_path=temp_dir)
        exporter = CSVExporter.from_config(config)
        assert exporter.interval == 0.5
        assert exporter.file_name_root == "cfg"
        assert exporter.export_path == temp_dir


class TestGlobalExporter:
    """Tests for the fan-out composite."""

    def test_forwards_to_all(self, temp_dir, empty_environment):
        """Every child receives every lifecycle call."""
        first = CSVExporter("first", interval=0.0, export_path=temp_dir)
        second = RecordingExporter(interval=0.0)
        first.bind_data_extractors([TimeExtractor()])
        second.bind_data_extractors([TimeExtractor()])
        composite = GlobalExporter([first, second])

        run_scenario(composite, empty_environment, [(0.5, 1)], final=(1.0, 2))

        assert read_csv_samples(first.output_path) == [[0.0], [0.5], [1.0]]
        assert second.records == [[0.0], [0.5], [1.0]]
        assert first.is_closed and second.is_closed

    def test_failure_stops_later_children(self, empty_environment):
        """A failing child aborts the call; later children are not invoked."""
        failing = RecordingExporter(fail_on_open=True)
        later = RecordingExporter()
        failing.bind_data_extractors([TimeExtractor()])
        later.bind_data_extractors([TimeExtractor()])
        composite = GlobalExporter([failing, later])
        with pytest.raises(SinkOpenError):
            composite.setup(empty_environment)
        assert later.events == []
        assert not later.is_setup

    def test_update_failure_stops_later_children(self, empty_environment):
        """A child failing on update aborts the call before later children sample."""
        failing = RecordingExporter(interval=0.0)
        later = RecordingExporter(interval=0.0)
        failing.bind_data_extractors([FailingExtractor(from_time=1.0)])
        later.bind_data_extractors([TimeExtractor()])
        composite = GlobalExporter([failing, later])
        composite.setup(empty_environment)

        with pytest.raises(RuntimeError):
            composite.update(empty_environment, None, 1.0, 1)
        assert later.records == [[0.0]]

    def test_close_failure_stops_later_children(self, empty_environment):
        """A child failing on close aborts the call; later children stay open."""
        failing = RecordingExporter(fail_on_footer=True)
        later = RecordingExporter()
        failing.bind_data_extractors([TimeExtractor()])
        later.bind_data_extractors([TimeExtractor()])
        composite = GlobalExporter([failing, later])
        composite.setup(empty_environment)

        with pytest.raises(OSError):
            composite.close(empty_environment, 1.0, 1)
        assert failing.is_closed
        assert failing.events[-1] == "release"
        assert not later.is_closed
        assert "release" not in later.events

    def test_data_extractors_union(self):
        """Shared extractors are listed once, in first-seen order."""
        time = TimeExtractor()
        step = StepExtractor()
        first = RecordingExporter()
        second = RecordingExporter()
        first.bind_data_extractors([time])
        second.bind_data_extractors([time, step])
        assert GlobalExporter([first, second]).data_extractors == (time, step)

    def test_binding_not_supported(self):
        """Binding happens on children only."""
        composite = GlobalExporter([RecordingExporter()])
        with pytest.raises(ExportError):
            composite.bind_data_extractors([TimeExtractor()])
        with pytest.raises(ExportError):
            composite.bind_variables({"a": 1})
