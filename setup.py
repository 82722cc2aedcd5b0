from setuptools import setup, find_packages

setup(
    name="PSEPower",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
    ],
    extras_require={
        "parallel": ["joblib"],
        "progress": ["tqdm"],
        "test": ["pytest", "joblib", "tqdm"],
    },
    author="Paweł Lenartowicz",
    description="Monte Carlo Power Analysis for PSE experiments",
)
