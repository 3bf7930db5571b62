"""Setup script for the dynapi package."""

from setuptools import find_packages, setup

with open("README.md", "r") as f:
    long_description = f.read()

setup(
    name="dynapi",
    version="1.0.0",
    description="Serve HTTP endpoints declared at runtime, with conditional responses and an admin API.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["dynapi", "dynapi.*"]),
    include_package_data=True,
    install_requires=[
        "pydantic>=2.0",
        "fastapi",
        "uvicorn",
        "python-multipart",  # Multipart asset uploads and form bodies
        "PyJWT",  # Admin session tokens
        "bcrypt",  # Admin password hashing
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "pre-commit>=3.0.0",
            "black",  # Code formatter
            "isort",  # Import sorting
            "flake8",  # Linting
            "mypy",  # Type checking
            "pytest-cov",  # Coverage reporting
            "python-dotenv>=1.0.0",  # Environment variable management
        ],
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "pytest-cov",  # Coverage reporting
            "python-dotenv>=1.0.0",  # Environment variable management
        ],
    },
    entry_points={"console_scripts": ["dynapi=dynapi.__main__:main"]},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
)
