"""League metrics: team and coach Elo, Park-Newman win value and standings."""
