"""Setup configuration for Modshield Discord Automod Bot."""

from setuptools import setup, find_packages

setup(
    name="modshield",
    version="0.0.1",
    description="A rule-based automod bot for Discord with progressive punishments",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiosqlite>=0.20",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "emoji>=2.8",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modshield=modshield.main:main",
        ],
    },
)
