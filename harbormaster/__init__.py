"""HarborMaster: a dock, ship and hauler registry that never overfills a dock."""
