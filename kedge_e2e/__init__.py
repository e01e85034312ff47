"""
kedge-e2e: end-to-end verification harness for manifest generators
Generates manifests, deploys them into throwaway namespaces and checks that
the resulting pods run and their NodePort services answer over HTTP
"""

__version__ = "0.1.0"
