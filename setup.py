"""Install sessionauth package."""

from setuptools import setup, find_packages

setup(
    name='sessionauth',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    python_requires='>=3.8',
    install_requires=[
        "flask",
        "flask-sqlalchemy>=3.0",
        "sqlalchemy>=1.4",
        "pytz",
        "retry",
        "click",
        "werkzeug",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
            "mimesis",
        ],
    },
    entry_points={
        'console_scripts': [
            'sessionauth=sessionauth.cli:main',
        ],
    },
    zip_safe=False
)
