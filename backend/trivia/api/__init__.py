"""JSON blueprints for topics, lobbies and games."""
