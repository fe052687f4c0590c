from pgselfhost.services.address_detection import HostAddressDetector


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class FakeResponse:
    def __init__(self, text, status_ok=True, error_class=Exception):
        self.text = text
        self.status_ok = status_ok
        self.error_class = error_class

    def raise_for_status(self):
        if not self.status_ok:
            raise self.error_class("503 Service Unavailable")


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        outcome = self.responses.get(url)
        if outcome is None:
            raise self.RequestException("connection timed out")
        if isinstance(outcome, FakeResponse):
            outcome.error_class = self.RequestException
        return outcome


class FakeSocket:
    def __init__(self, address, fail_connect=False):
        self.address = address
        self.fail_connect = fail_connect
        self.closed = False

    def connect(self, _target):
        if self.fail_connect:
            raise OSError("Network is unreachable")

    def getsockname(self):
        return (self.address, 54321)

    def close(self):
        self.closed = True


class FakeSocketModule:
    AF_INET = 2
    SOCK_DGRAM = 2

    def __init__(self, address="10.1.2.3", fail_connect=False):
        self.created = FakeSocket(address, fail_connect=fail_connect)

    def socket(self, *_args):
        return self.created


SERVICES = ("https://one.example", "https://two.example")


def test_detect_uses_first_service_with_valid_address():
    fake_requests = FakeRequestsModule(
        {
            "https://one.example": FakeResponse("<html>blocked</html>"),
            "https://two.example": FakeResponse("203.0.113.7\n"),
        }
    )
    detector = HostAddressDetector(
        logger=DummyLogger(),
        services=SERVICES,
        timeout=3.0,
        requests_module=fake_requests,
        socket_module=FakeSocketModule(),
    )

    assert detector.detect() == ("203.0.113.7", "probe")
    assert fake_requests.calls == [("https://one.example", 3.0), ("https://two.example", 3.0)]


def test_detect_falls_back_to_local_address_when_probes_fail():
    fake_requests = FakeRequestsModule({"https://one.example": FakeResponse("", status_ok=False)})
    sockets = FakeSocketModule(address="192.168.10.20")
    detector = HostAddressDetector(
        logger=DummyLogger(),
        services=SERVICES,
        requests_module=fake_requests,
        socket_module=sockets,
    )

    assert detector.detect() == ("192.168.10.20", "local")
    assert sockets.created.closed is True


def test_detect_uses_placeholder_when_everything_fails():
    detector = HostAddressDetector(
        logger=DummyLogger(),
        services=SERVICES,
        requests_module=FakeRequestsModule({}),
        socket_module=FakeSocketModule(fail_connect=True),
    )

    assert detector.detect() == ("localhost", "placeholder")


def test_local_address_ignores_loopback():
    detector = HostAddressDetector(
        logger=DummyLogger(),
        services=(),
        requests_module=FakeRequestsModule({}),
        socket_module=FakeSocketModule(address="127.0.0.1"),
    )

    assert detector.local_address() is None
    assert detector.detect() == ("localhost", "placeholder")
