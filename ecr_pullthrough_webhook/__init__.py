"""Mutating admission webhook that routes Pod images through an ECR pull-through cache."""

__version__ = "0.1.0"
