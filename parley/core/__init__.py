"""Core plumbing shared by Parley channels."""
