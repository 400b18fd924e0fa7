#!/usr/bin/env python

from setuptools import setup, find_packages


setup(
    name='chasing',
    version='0.1.0',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.7',
    install_requires=['numpy>=1.17',
                      'scipy',
                      'pandas',
                      'matplotlib',
                      'seaborn>=0.11',
                      'argh',
                      'openpyxl',
                      'scikit-image>=0.19',
                      'opencv-python'],
    extras_require={'test': ['pytest']},
)
