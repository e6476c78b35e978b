import functools
import pathlib as pl
import tempfile

from _pytest.tmpdir import TempPathFactory


class PytestTempDirs:
    """Temporary directory of the current pytest worker, holding `framework.log`.

    The class is initialized in `conftest.py` where we have access to the `tmp_path_factory`
    fixture.
    """

    pytest_worker_tmp: pl.Path | None = None

    @classmethod
    def init(cls, tmp_path_factory: TempPathFactory) -> None:
        cls.pytest_worker_tmp = pl.Path(tmp_path_factory.getbasetemp())

    @classmethod
    def is_initialized(cls) -> bool:
        return cls.pytest_worker_tmp is not None


def get_pytest_worker_tmp() -> pl.Path:
    """Return Pytest temporary directory for the current worker.

    When running pytest with multiple workers, each worker has it's own base temporary
    directory inside the "root" temporary directory.
    """
    if PytestTempDirs.pytest_worker_tmp is None:
        msg = "PytestTempDirs are not initialized"
        raise RuntimeError(msg)
    return PytestTempDirs.pytest_worker_tmp


@functools.cache
def get_basetemp() -> pl.Path:
    """Return base temporary directory for framework artifacts."""
    basetemp = pl.Path(tempfile.gettempdir()) / "robusta-tests"
    basetemp.mkdir(mode=0o700, parents=True, exist_ok=True)
    return basetemp


def get_worker_tmp() -> pl.Path:
    """Return temporary directory of the current pytest worker, or the base temp dir."""
    if PytestTempDirs.is_initialized():
        return get_pytest_worker_tmp()
    return get_basetemp()
