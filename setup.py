"""
Setup file.
"""

from pathlib import Path

from setuptools import find_packages, setup

KEYWORDS = "subprocess child process promise await asyncio spawn exec"
HERE = Path(__file__).parent


if __name__ == "__main__":
    setup(
        name="process-promise",
        version="1.0.0",
        description="Awaitable child processes with bounded output capture.",
        long_description=(HERE / "DESIGN.md").read_text(encoding="utf-8"),
        long_description_content_type="text/markdown",
        keywords=KEYWORDS,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages("src"),
        install_requires=["psutil"],
        extras_require={"test": ["pytest"]},
        entry_points={"console_scripts": ["process-promise=process_promise.cli:main"]},
    )
