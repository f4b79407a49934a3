# Credential-less platform connectors
