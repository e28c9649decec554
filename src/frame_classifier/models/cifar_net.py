# src/frame_classifier/models/cifar_net.py

import torch
import torch.nn as nn
from typing import Tuple


class ConvPoolBlock(nn.Module):
    """
    5x5 same-padding convolution, 2x2 max pooling, ReLU.

    Pooling comes before the activation, matching the order the network
    was trained with.
    """

    def __init__(self, in_channels: int, out_channels: int, kernel_size: int = 5):
        super().__init__()
        self.conv = nn.Conv2d(in_channels, out_channels, kernel_size, padding=kernel_size // 2)
        self.pool = nn.MaxPool2d(2)
        self.activation = nn.ReLU(inplace=True)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.activation(self.pool(self.conv(x)))


class CifarNet(nn.Module):
    """
    Fixed-topology CIFAR-10 classifier.

    C1 conv(3->32) / P2 / relu, C3 conv(32->32) / P4 / relu,
    C5 conv(32->64) / P6 / relu, FC7 (1024->64), FC8 (64->classes), softmax.
    """

    def __init__(self, num_classes: int = 10, input_shape: Tuple[int, int, int] = (3, 32, 32),
                 fmaps: int = 32, fmaps2: int = 64, hidden: int = 64):
        super().__init__()

        channels, height, width = input_shape
        if height % 8 or width % 8:
            raise ValueError(f"Input height and width must be multiples of 8, got {height}x{width}")

        self.input_shape = input_shape
        self.num_classes = num_classes

        self.features = nn.Sequential(
            ConvPoolBlock(channels, fmaps),   # C1, P2
            ConvPoolBlock(fmaps, fmaps),      # C3, P4
            ConvPoolBlock(fmaps, fmaps2),     # C5, P6
        )

        flat = fmaps2 * (height // 8) * (width // 8)
        self.classifier = nn.Sequential(
            nn.Flatten(),
            nn.Linear(flat, hidden),          # FC7
            nn.Linear(hidden, num_classes),   # FC8
            nn.Softmax(dim=1),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.classifier(self.features(x))
