"""Package setup for the GEO/AEO Copy Coach."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [
        line.strip()
        for line in fh
        if line.strip() and not line.startswith("#")
    ]

# Separate test dependencies
test_requirements = [
    "pytest>=8.0.0,<9.0",
    "pytest-asyncio>=0.23.0,<1.0",
    "pytest-cov>=4.1.0,<6.0",
]

setup(
    name="geo-copy-coach",
    version="1.0.0",
    author="GEO Copy Coach Team",
    author_email="geo-copy-coach@example.com",
    description=(
        "Local-SEO homepage copy coach with AI Overview and Perplexity "
        "visibility checks."
    ),
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["geocoach", "geocoach.*"]),
    python_requires=">=3.10",
    install_requires=[r for r in requirements if "pytest" not in r],
    extras_require={
        "test": test_requirements,
        "dev": test_requirements + [
            "black",
            "flake8",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "geocoach=geocoach.cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "": ["*.yaml", "*.yml"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
        "Topic :: Internet :: WWW/HTTP :: Site Management",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Framework :: FastAPI",
        "Framework :: Pytest",
    ],
    keywords=[
        "seo", "local-seo", "geo", "aeo", "ai-overview", "perplexity",
        "serpapi", "openai", "gemini", "fastapi", "streamlit",
    ],
)
