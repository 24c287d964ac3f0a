"""Publication access and post-save processing.

Decides who may see a publication's metadata or content, and finishes
processing a newly saved publication: PDF rendering followed by the
subscriber notification fan-out.
"""
