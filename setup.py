from setuptools import find_packages, setup

NAME = "tnfiscal"

setup(
    name=NAME,
    version="0.1.0",
    description="Totaux fiscaux (TVA, FODEC, timbre, retenue) et numérotation séquentielle multi-tenant",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "openpyxl>=3.1",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": ["tnfiscal=tnfiscal.cli:main"],
    },
)
