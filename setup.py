from setuptools import setup, find_packages

with open('README.md', 'r') as readme:
    long_description = readme.read()

setup(
    name='chisel', 
    version='1.0.0', 
    description='A parametric geometry kernel: rational B-spline and Bezier curves, tensor-product patches and their tessellation.', 
    long_description=long_description, 
    long_description_content_type='text/markdown', 
    packages=find_packages(include=['chisel', 'chisel.*']), 
    install_requires=['numpy', 'numba', 'scipy', 'matplotlib', 'meshio', 'tqdm'], 
    extras_require={'test': ['pytest']}, 
    classifiers=['Programming Language :: Python :: 3', 
                 'Operating System :: OS Independent'], 
    
)
