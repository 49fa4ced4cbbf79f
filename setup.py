from setuptools import setup, find_namespace_packages

setup(
    name="ptc",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["ptc", "ptc.*"]),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "tenacity>=8.0",
        "python-dotenv>=1.0",
        "docker>=7.0",
        "structlog>=23.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "black>=23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ptc=ptc.CLI.main:main",
        ],
    },
)
