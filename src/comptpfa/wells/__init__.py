"""Well topology, controls and construction."""
