"""
Setup file.
"""

from pathlib import Path

from setuptools import find_packages, setup

URL = "https://github.com/cmd-harness/cmd-harness"
KEYWORDS = "cli testing subprocess timeout black-box"
HERE = Path(__file__).parent


def get_version() -> str:
    for line in (HERE / "src" / "cmd_harness" / "__init__.py").read_text(encoding="utf-8").splitlines():
        if line.startswith("__version__"):
            return line.split("=", 1)[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="cmd-harness",
        version=get_version(),
        description="Black-box testing support for command-line programs: spawn, feed, capture, time out.",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages("src"),
        install_requires=["psutil>=5.9"],
        extras_require={"test": ["pytest>=7"]},
        entry_points={"console_scripts": ["cmd-harness=cmd_harness.cli:main"]},
        include_package_data=True,
    )
