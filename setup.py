from setuptools import setup, find_packages

setup(
    name="conveyr",
    version="0.1.0",
    description="Conveyr - unidirectional data-flow runtime: actions, services and stores",
    author="Conveyr Team",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "typer>=0.16.0",
        "rich>=13.7.1",
        "PyYAML>=6.0.2",
        "python-dotenv>=1.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.3.2",
            "pytest-asyncio>=0.23.8",
        ],
    },
    entry_points={
        "console_scripts": [
            "conveyr=conveyr.apps.cli.app:app",  # команда `conveyr`
        ],
    },
)
