from setuptools import setup, find_packages

setup(
    name='nnsearch',
    version='0.1.0',
    description='Exact KD-Tree and approximate random projection forest k-Nearest Neighbors Search',
    author='Your Name',
    packages=find_packages(include=['nnsearch', 'nnsearch.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.21.0',
        'scipy>=1.7.0',
        'scikit-learn>=1.0.0',
        'joblib>=1.0.0',
        'pyyaml>=6.0',
        'tqdm>=4.62.0',
    ],
    extras_require={
        'dev': [
            'pytest>=6.0.0',
        ],
    }
)
