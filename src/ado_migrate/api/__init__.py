"""Clients for the Azure DevOps and GitHub APIs."""
