"""Wire schemas shared between the CartCare coordination server and its clients."""
