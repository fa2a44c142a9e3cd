"""LocalDeals: a community-moderated local deals board API."""
