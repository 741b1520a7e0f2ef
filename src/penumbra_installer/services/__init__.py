"""Services for the Penumbra installer."""
