"""Setup configuration for the modledger moderation core."""

from setuptools import setup, find_packages

setup(
    name="modledger",
    version="0.1.0",
    description="Moderation action ledger and display directive resolution",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"modledger.data": ["*.yml"]},
    python_requires=">=3.11",
    install_requires=[
        "aiosqlite>=0.19",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
        "click>=8.2",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modledger=modledger.main:main",
        ],
    },
)
