"""Setup script for taskpilot."""
from setuptools import setup, find_packages

setup(
    name="taskpilot",
    version="0.1.0",
    description="Create the same set of tasks under every user story of an Azure DevOps sprint",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "python-dotenv>=1.0.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "rich>=13.0.0",
        "requests>=2.31.0",
        "azure-devops>=7.1.0b4",
        "msrest>=0.7.1",
        "aiofiles>=23.0.0",
        "python-dateutil>=2.8.0",
        "streamlit>=1.46.0",
        "pandas>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
