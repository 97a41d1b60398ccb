"""PrintDesk: subscription access core for the print shop management app."""
