import os
import shutil
import subprocess


def run_pytest_tests(file: str | os.PathLike):
    """Runs pytest tests in the provided `file`"""
    os.system(f'pytest "{os.path.abspath(file)}" -v')


def docker_available() -> bool:
    """ Checks if `docker` CLI is installed and can reach a daemon. """
    if shutil.which("docker") is None:
        return False
    try:
        subprocess.run(["docker", "info"], check=True, capture_output=True, timeout=30)
        return True
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return False
