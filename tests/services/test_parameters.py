import pytest

from pgselfhost.errors import ValidationError
from pgselfhost.services.parameters import ParameterResolver


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class FakeDetector:
    def __init__(self, result=("198.51.100.4", "probe")):
        self.result = result
        self.called = False

    def detect(self):
        self.called = True
        return self.result


def _resolver(detector=None):
    return ParameterResolver(address_detector=detector or FakeDetector(), logger=DummyLogger())


def test_resolve_with_explicit_inputs_skips_detection(tmp_path):
    detector = FakeDetector()
    resolver = _resolver(detector)

    parameters = resolver.resolve(
        directory=str(tmp_path / "stack"),
        host_address="203.0.113.10",
        permitted_addresses=["10.0.0.5", "192.168.1.100"],
    )

    assert detector.called is False
    assert parameters.directory == str(tmp_path / "stack")
    assert parameters.host_address == "203.0.113.10"
    assert parameters.host_address_origin == "explicit"
    assert parameters.permitted_addresses == ("10.0.0.5/32", "192.168.1.100/32")
    assert parameters.open_access is False
    assert parameters.access_mode == "whitelist"


def test_resolve_uses_detector_and_flags_placeholder(tmp_path):
    resolver = _resolver(FakeDetector(("localhost", "placeholder")))

    parameters = resolver.resolve(directory=str(tmp_path), open_access=True)

    assert parameters.host_address == "localhost"
    assert parameters.host_address_degraded is True
    assert parameters.access_mode == "open"


def test_permitted_addresses_are_trimmed_split_and_deduplicated():
    resolver = _resolver()

    result = resolver.normalize_permitted_addresses(
        [" 10.0.0.5 ", "192.168.1.0/24,10.0.0.5", "2001:db8::1  fd00::/8", "10.0.0.5/32"]
    )

    assert result == ("10.0.0.5/32", "192.168.1.0/24", "2001:db8::1/128", "fd00::/8")


def test_permitted_range_host_bits_are_masked():
    assert _resolver().normalize_permitted_addresses(["192.168.1.77/24"]) == ("192.168.1.0/24",)


@pytest.mark.parametrize("entry", ["10.0.0.300", "10.0.0.0/33", "example.com", "::1/129"])
def test_malformed_permitted_address_is_rejected(entry):
    with pytest.raises(ValidationError, match="Invalid permitted address"):
        _resolver().normalize_permitted_addresses([entry])


def test_empty_list_requires_explicit_open_access(tmp_path):
    with pytest.raises(ValidationError, match="open access was not requested"):
        _resolver().resolve(directory=str(tmp_path), host_address="10.0.0.1")


def test_open_access_conflicts_with_addresses(tmp_path):
    with pytest.raises(ValidationError, match="cannot be combined"):
        _resolver().resolve(
            directory=str(tmp_path),
            host_address="10.0.0.1",
            permitted_addresses=["10.0.0.5"],
            open_access=True,
        )


@pytest.mark.parametrize("directory", ["", "   ", "/srv/pg:data", "/srv/pg\nother"])
def test_malformed_directory_is_rejected(directory):
    with pytest.raises(ValidationError, match="Invalid installation directory"):
        _resolver().resolve_directory(directory)


def test_directory_that_is_a_file_is_rejected(tmp_path):
    target = tmp_path / "stack"
    target.write_text("", encoding="utf-8")

    with pytest.raises(ValidationError, match="not a directory"):
        _resolver().resolve_directory(str(target))


def test_relative_directory_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert _resolver().resolve_directory("stack") == str(tmp_path / "stack")


def test_default_directory():
    assert _resolver().resolve_directory(None) == "/srv/postgres16"


@pytest.mark.parametrize(
    "value,expected",
    [("10.0.0.1", "10.0.0.1"), (" db.example.com ", "db.example.com"), ("2001:db8::1", "2001:db8::1")],
)
def test_valid_host_addresses(value, expected):
    assert _resolver().validate_host_address(value) == expected


@pytest.mark.parametrize("value", ["", "999.1.1.1", "bad_host!", "-leading.example.com"])
def test_invalid_host_addresses(value):
    with pytest.raises(ValidationError, match="Invalid server address"):
        _resolver().validate_host_address(value)


@pytest.mark.parametrize("ports", [(0, 5050), (5432, 70000), (5432, 5432), ("abc", 5050)])
def test_invalid_ports_are_rejected(tmp_path, ports):
    with pytest.raises(ValidationError, match="port"):
        _resolver().resolve(
            directory=str(tmp_path),
            host_address="10.0.0.1",
            open_access=True,
            database_port=ports[0],
            admin_ui_port=ports[1],
        )


def test_invalid_database_name_is_rejected(tmp_path):
    with pytest.raises(ValidationError, match="Invalid database name"):
        _resolver().resolve(
            directory=str(tmp_path),
            host_address="10.0.0.1",
            open_access=True,
            database_name="App-DB",
        )


def test_internal_only_is_an_explicit_access_choice(tmp_path):
    parameters = _resolver().resolve(directory=str(tmp_path), host_address="10.0.0.1", internal_only=True)

    assert parameters.access_mode == "internal"
    assert parameters.database_exposed is False
    assert parameters.permitted_addresses == ()
    assert parameters.open_access is False


@pytest.mark.parametrize(
    "choice",
    [
        {"internal_only": True, "open_access": True},
        {"internal_only": True, "permitted_addresses": ["10.0.0.5"]},
    ],
)
def test_internal_only_conflicts_with_other_choices(tmp_path, choice):
    with pytest.raises(ValidationError, match="cannot be combined"):
        _resolver().resolve(directory=str(tmp_path), host_address="10.0.0.1", **choice)
