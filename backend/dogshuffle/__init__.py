"""Dog Shuffle: does Noah got that dog in 'em?"""
