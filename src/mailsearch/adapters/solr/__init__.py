"""Apache Solr adapter."""
