#!/usr/bin/env python
# -*- coding: utf-8 -*-
import io
import re

import setuptools
from pathlib import Path

root_directory = Path(__file__).parent
readme_filepath = root_directory.joinpath('README.md')
long_description = readme_filepath.read_text()


def get_version():
    version_filepath = Path('src', 'srmeasurements', 'version.py')
    with io.open(version_filepath, 'rt', encoding='utf8') as f:
        version = re.search(r'__version__ = \'(.*?)\'', f.read()).group(1)
    return version


setuptools.setup(
    name='srmeasurements',
    version=get_version(),
    description=(
        'Extraction and display of measurements of DICOM Structured Reports.'
    ),
    long_description=long_description,
    long_description_content_type='text/markdown',
    license='MIT',
    platforms=['Linux', 'MacOS', 'Windows'],
    classifiers=[
        'Operating System :: MacOS',
        'Operating System :: Microsoft :: Windows',
        'Operating System :: POSIX :: Linux',
        'License :: OSI Approved :: MIT License',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Medical Science Apps.',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Development Status :: 3 - Alpha',
    ],
    include_package_data=True,
    packages=setuptools.find_packages('src'),
    package_dir={'': 'src'},
    python_requires='>=3.10',
    install_requires=[
        'pydicom>=3.0.0',
        'numpy>=1.19',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'flake8>=5.0',
        ],
    },
)
