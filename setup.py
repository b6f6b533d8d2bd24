from setuptools import setup


setup(
    name="sheet-formatter",
    version="0.1.0",
    description="Local spreadsheet cleanup: trim cells, standardize headers, drop empty rows, normalize dates",
    packages=["sheet_formatter"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "test": ["pytest"],
        "all": ["xlrd"],
    },
    entry_points={
        "console_scripts": [
            "sheet-formatter=sheet_formatter.cli:main",
        ]
    },
)
