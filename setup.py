from setuptools import (
    find_packages,
    setup,
)

setup(
    name="cxxdb",
    version="0.3.0",
    description="Build a resolved symbol database from C++ headers with libclang",
    packages=find_packages(exclude=["test", "test.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click",
        "libclang",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "cxxdb=cxxdb:cli",
        ],
    },
)
