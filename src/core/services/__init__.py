"""Domain services shared by components: message rendering."""
