from setuptools import find_packages, setup

setup(
    name="pipesim",
    version="0.1.0",
    description="Static analysis and simulation of SSIS, ADF and Databricks pipelines",
    packages=find_packages(include=["pipesim", "pipesim.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "pipesim=pipesim.cli.main:main",
        ],
    },
)
