"""Operator-facing surfaces: the argparse CLI and its rich-backed renderer."""
