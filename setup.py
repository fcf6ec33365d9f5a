"""Setup script for the netproxy package."""

from setuptools import setup, find_packages

requires = ["attrs>=21.3.0", "blinker>=1.4", "trio>=0.25.0", "trio-util>=0.7.0"]

__version__ = None
exec(open("src/netproxy/version.py").read())

setup(
    name="netproxy",
    version=__version__,
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=requires,
    extras_require={
        "test": ["pytest>=8.0", "pytest-trio>=0.8.0"],
    },
    test_suite="test",
)
