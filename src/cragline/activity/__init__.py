"""Activity items: posts, beta, events, group visits, engagement and feeds."""
