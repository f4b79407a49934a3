# Credentialed third-party connectors
