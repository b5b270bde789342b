"""Order API: catalog lookup, order creation and order retrieval."""
