import threading

import pytest

from robusta_tests.utils import helpers


@pytest.mark.parametrize(
    ("seconds", "expected"),
    (
        (0, "0s"),
        (1, "1s"),
        (1.5, "1.5s"),
        (0.5, "500ms"),
        (0.0015, "1.5ms"),
        (0.000002, "2µs"),
        (90, "1m30s"),
        (3600, "1h0m0s"),
        (3661.25, "1h1m1.25s"),
        (-2, "-2s"),
    ),
)
def test_format_duration(seconds: float, expected: str):
    assert helpers.format_duration(seconds) == expected


def test_get_rand_str():
    assert len(helpers.get_rand_str(10)) == 10
    assert helpers.get_rand_str(0) == ""


def test_write_json(tmp_path):
    out_file = tmp_path / "out.json"
    helpers.write_json(out_file=out_file, content={"a": {"b": 1}})
    assert out_file.read_text() == '{\n  "a": {\n    "b": 1\n  }\n}'


class TestCallWithTimeout:
    def test_no_timeout(self):
        assert helpers.call_with_timeout(lambda: 42, timeout=None) == 42

    def test_result_in_time(self):
        assert helpers.call_with_timeout(lambda: "done", timeout=5) == "done"

    def test_error_propagated(self):
        def _fail() -> None:
            msg = "boom"
            raise ValueError(msg)

        with pytest.raises(ValueError, match="boom"):
            helpers.call_with_timeout(_fail, timeout=5)

    def test_timeout(self):
        release = threading.Event()
        try:
            with pytest.raises(TimeoutError):
                helpers.call_with_timeout(release.wait, timeout=0.05)
        finally:
            release.set()
