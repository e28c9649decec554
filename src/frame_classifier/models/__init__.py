"""
Network definitions for the frame classifier.
"""

from .cifar_net import CifarNet, ConvPoolBlock

__all__ = ['CifarNet', 'ConvPoolBlock']
