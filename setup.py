from setuptools import find_packages, setup

setup(
    name="handcart-unlock",
    version="0.1.0",
    packages=find_packages(include=["unlock_core", "unlock_core.*", "rental_console", "rental_console.*"]),
    package_dir={"": "."},
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        "alembic>=1.13.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "loguru>=0.7.0",
        "python-dotenv>=1.0.0",
        "requests>=2.31.0",
        "urllib3>=2.0.0",
        "pybreaker>=1.1.0",
        "prometheus-client>=0.19.0",
        "prometheus-fastapi-instrumentator>=6.1.0",
        "cachetools>=5.3.0",
        "redis>=5.0.0,<7",
        "httpx>=0.26.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "unlock-core=unlock_core.main:main",
            "rental-console=rental_console.main:main",
        ],
    },
)
