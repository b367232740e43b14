"""Ben-Or randomized binary consensus nodes"""
