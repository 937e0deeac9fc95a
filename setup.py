# setup.py
from setuptools import setup, find_packages

setup(
    name="site_migrate",
    version="0.1.0",
    description="Asynchronous SEO migration auditor: crawls an old and a new site and compares them page by page",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"site_migrate.report": ["templates/*.j2"]},
    include_package_data=True,
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "lxml>=4.9",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "click>=8.1",
        "Jinja2>=3.1",
        "redis>=5.0.1",
        "openpyxl>=3.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-migrate=site_migrate.cli:main",
        ],
    },
    python_requires=">=3.11",
)
