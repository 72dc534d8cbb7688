"""Search pagination, collection and tracking of GitHub activity."""
