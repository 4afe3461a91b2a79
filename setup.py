from setuptools import setup, find_packages

setup(
    name="ynab_reconcile",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas",
        "numpy",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-dependency",
        ],
    },
    description="Find transactions missing between a YNAB export and a bank export",
    python_requires=">=3.8",
)
