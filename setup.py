from setuptools import setup, find_packages
README = open('README.md', 'r').read()

setup(
      name='turnamp',
      version='0.1.0',
      packages=find_packages(include=['turnamp', 'turnamp.*']),
      python_requires='>=3.6',
      install_requires=['Twisted'],
      extras_require={
          'test': ['pytest'],
          },
      entry_points={
          'console_scripts': ['turnamp = turnamp.main:main'],
          },

      license='MIT',

      description="TURN server amplification factor measurement",
      classifiers=[
                   'Programming Language :: Python :: 3',
                   'Framework :: Twisted',
                   'Intended Audience :: Information Technology',
                   'Intended Audience :: System Administrators',
                   'License :: OSI Approved :: MIT License',
                   'Operating System :: OS Independent',
                   'Topic :: Internet',
                   'Topic :: System :: Networking',
                   'Topic :: Security',
                   ],
      long_description=README
      )
